"""
Picture Processor - Online K-means color quantization

Copyright (C) 2025 Adnan Valdes

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""
import logging
import warnings

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from picture_logging import log_method, log_step
from picture_raster import (
    InvalidParameterError,
    PictureError,
    Raster,
    pack_rgb,
    unpack_rgb,
)


DEFAULT_CLUSTER_COUNT = 60

# Upper bound on full reassignment passes; normal inputs settle far below it
DEFAULT_MAX_ITERATIONS = 1000

UNASSIGNED = -1


logger = logging.getLogger(__name__)


class EmptyClusterError(PictureError):
    pass


class ConvergenceWarning(UserWarning):
    pass


@dataclass
class ConvergenceReport:
    passes: int = 0
    converged: bool = False
    reassignments: List[int] = field(default_factory=list)
    costs: List[int] = field(default_factory=list)
    rejected_moves: int = 0


class Cluster:
    """
    A group of pixels sharing one centroid.

    The cluster keeps running per-channel sums and a member count so that
    adding or removing a pixel updates the centroid without rescanning the
    image. The centroid is always sum // count.
    """

    __slots__ = (
        "cluster_id",
        "origin",
        "count",
        "sum_red",
        "sum_green",
        "sum_blue",
        "mean_red",
        "mean_green",
        "mean_blue",
    )

    def __init__(self, cluster_id: int, color: int, origin: Optional[int] = None) -> None:
        red, green, blue = unpack_rgb(color)
        self.cluster_id = cluster_id
        self.origin = origin
        self.count = 1
        self.sum_red, self.sum_green, self.sum_blue = red, green, blue
        self.mean_red, self.mean_green, self.mean_blue = red, green, blue

    def add(self, color: int) -> None:
        red, green, blue = unpack_rgb(color)
        self.sum_red += red
        self.sum_green += green
        self.sum_blue += blue
        self.count += 1
        self._update_mean()

    def remove(self, color: int) -> None:
        """
        Takes a pixel out of the cluster.
        Raises EmptyClusterError, leaving the cluster untouched, if it is the last member.
        """
        if self.count <= 1:
            raise EmptyClusterError(
                f"Cluster {self.cluster_id} cannot give up its last member"
            )
        red, green, blue = unpack_rgb(color)
        self.sum_red -= red
        self.sum_green -= green
        self.sum_blue -= blue
        self.count -= 1
        self._update_mean()

    def distance(self, color: int) -> int:
        """Averaged L1 distance between the centroid and a color."""
        red, green, blue = unpack_rgb(color)
        return (
            abs(self.mean_red - red)
            + abs(self.mean_green - green)
            + abs(self.mean_blue - blue)
        ) // 3

    def mean(self) -> int:
        return pack_rgb(self.mean_red, self.mean_green, self.mean_blue)

    def channels(self) -> Tuple[int, int, int]:
        return self.mean_red, self.mean_green, self.mean_blue

    def _update_mean(self) -> None:
        self.mean_red = self.sum_red // self.count
        self.mean_green = self.sum_green // self.count
        self.mean_blue = self.sum_blue // self.count

    def __repr__(self) -> str:
        return (
            f"Cluster(id={self.cluster_id}, count={self.count}, "
            f"mean=({self.mean_red}, {self.mean_green}, {self.mean_blue}))"
        )


class KMeansQuantizer:
    """
    Reduces a raster to at most num_clusters colors with online K-means.

    Clusters are seeded at evenly strided pixels, then every pixel is
    reassigned to its nearest centroid in row-major order, updating the
    affected centroids immediately, until a full pass moves no pixel.
    """

    def __init__(
        self,
        num_clusters: int = DEFAULT_CLUSTER_COUNT,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        if num_clusters < 1:
            raise InvalidParameterError(
                f"Number of clusters must be at least 1, got {num_clusters}"
            )

        if max_iterations < 1:
            raise InvalidParameterError(
                f"max_iterations must be at least 1, got {max_iterations}"
            )

        self.num_clusters = num_clusters
        self.max_iterations = max_iterations
        self.report: Optional[ConvergenceReport] = None

    @log_method(log_time=True)
    def evaluate(self, raster: Raster) -> Raster:
        """
        Runs seeding, convergence and rendering on the raster and returns the
        quantized copy. The input raster is left as it was.
        """
        clusters = self.seed(raster)
        assignment = self.converge(raster, clusters)
        return self.render(raster, clusters, assignment)

    @log_step(lambda self: f"Seeding {self.num_clusters} clusters...")
    def seed(self, raster: Raster) -> List[Cluster]:
        """
        Places cluster i at (i * (width // K), i * (height // K)). When K is larger
        than both sides that diagonal collapses onto (0, 0), so the seeds are
        strided over the row-major pixel order instead.
        """
        self._check_cluster_count(raster)

        width, height = raster.width, raster.height
        clusters = []
        for cluster_id, (x, y) in enumerate(self._seed_positions(width, height)):
            clusters.append(
                Cluster(cluster_id, raster.get_pixel(x, y), origin=y * width + x)
            )
        return clusters

    @log_step("Reassigning pixels until no cluster changes...")
    def converge(self, raster: Raster, clusters: Sequence[Cluster]) -> np.ndarray:
        """
        Moves every pixel to its nearest cluster, pass after pass, until a whole
        pass completes without a move or the pass cap runs out.

        Each cluster starts out owning the pixel it was seeded from. Ties go to
        the lowest cluster id. A move that would leave its old cluster empty is
        refused and the pixel stays where it is.

        Returns the row-major assignment table and stores a ConvergenceReport
        on self.report.
        """
        pixels = raster.to_array().reshape(-1, 3).astype(np.int64)
        rows = pixels.tolist()
        colors = [pack_rgb(*channels) for channels in rows]
        # Small per-pixel searches run faster on plain lists than through numpy calls
        means = [cluster.channels() for cluster in clusters]
        cluster_ids = range(len(clusters))

        assignment = np.full(len(colors), UNASSIGNED, dtype=np.int64)
        for cluster in clusters:
            if cluster.origin is not None:
                assignment[cluster.origin] = cluster.cluster_id

        report = ConvergenceReport()
        self.report = report

        while report.passes < self.max_iterations:
            moved = 0
            for index, (red, green, blue) in enumerate(rows):
                # min() keeps the first minimum, so ties go to the lowest id
                nearest = min(
                    cluster_ids,
                    key=lambda c: (
                        abs(means[c][0] - red)
                        + abs(means[c][1] - green)
                        + abs(means[c][2] - blue)
                    )
                    // 3,
                )
                owner = int(assignment[index])
                color = colors[index]
                if owner == nearest:
                    continue

                if owner != UNASSIGNED:
                    previous = clusters[owner]
                    if previous.count == 1:
                        report.rejected_moves += 1
                        continue
                    previous.remove(color)
                    means[owner] = previous.channels()

                clusters[nearest].add(color)
                means[nearest] = clusters[nearest].channels()
                assignment[index] = nearest
                moved += 1

            report.passes += 1
            report.reassignments.append(moved)
            report.costs.append(self._cost(pixels, clusters, assignment))
            logger.debug(
                f"  Pass {report.passes}: {moved} pixels moved, cost {report.costs[-1]}"
            )

            if moved == 0:
                report.converged = True
                break

        if report.converged:
            logger.info(f"Converged after {report.passes} passes.")
        else:
            message = (
                f"No fixed point after {report.passes} passes; "
                f"rendering the current assignment."
            )
            logger.warning(message)
            # Skip the log_step wrapper so the warning points at the caller
            warnings.warn(message, ConvergenceWarning, stacklevel=3)

        if report.rejected_moves:
            logger.info(
                f"Kept {report.rejected_moves} pixels in place to avoid emptying a cluster."
            )

        return assignment

    @log_step("Rendering cluster means...")
    def render(
        self, raster: Raster, clusters: Sequence[Cluster], assignment: np.ndarray
    ) -> Raster:
        """
        Paints every pixel with the mean color of the cluster that owns it, into a
        new raster of the same size.
        """
        palette = np.array([cluster.channels() for cluster in clusters], dtype=np.uint8)
        for i, cluster in enumerate(clusters):
            logger.debug(f"  Color {i+1}: RGB{cluster.channels()} ({cluster.count} pixels)")

        output = palette[assignment].reshape(raster.height, raster.width, 3)
        return Raster.from_array(output)

    def total_cost(
        self, raster: Raster, clusters: Sequence[Cluster], assignment: np.ndarray
    ) -> int:
        """
        Sums the distance of every assigned pixel to its cluster mean, using the
        same averaged L1 metric as Cluster.distance.
        """
        pixels = raster.to_array().reshape(-1, 3).astype(np.int64)
        return self._cost(pixels, clusters, assignment)

    def _cost(
        self, pixels: np.ndarray, clusters: Sequence[Cluster], assignment: np.ndarray
    ) -> int:
        centroids = np.array([cluster.channels() for cluster in clusters], dtype=np.int64)

        owned = assignment != UNASSIGNED
        differences = np.abs(pixels[owned] - centroids[assignment[owned]])
        return int((differences.sum(axis=1) // 3).sum())

    def _check_cluster_count(self, raster: Raster) -> None:
        if self.num_clusters > raster.pixel_count:
            raise InvalidParameterError(
                f"Cannot seed {self.num_clusters} clusters in a "
                f"{raster.width}x{raster.height} image ({raster.pixel_count} pixels)"
            )

    def _seed_positions(self, width: int, height: int) -> List[Tuple[int, int]]:
        k = self.num_clusters
        step_x, step_y = width // k, height // k
        # The diagonal stays on distinct pixels as long as one side advances
        if step_x or step_y:
            return [(i * step_x, i * step_y) for i in range(k)]

        total = width * height
        return [((i * total // k) % width, (i * total // k) // width) for i in range(k)]


def quantize(
    raster: Raster,
    num_clusters: int = DEFAULT_CLUSTER_COUNT,
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Raster:
    """
    Reduce a raster to at most num_clusters colors.
    """
    quantizer = KMeansQuantizer(num_clusters=num_clusters, max_iterations=max_iterations)
    return quantizer.evaluate(raster)
