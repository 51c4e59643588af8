"""EuRoC MAV image sequence reader (mono or stereo)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import cv2
import numpy as np

logger = logging.getLogger(__name__)

StereoSample = tuple[np.ndarray, np.ndarray | None, int]


class DatasetReader:
    """Reads synchronized camera images from a EuRoC sequence.

    Image timestamps come from cam0/data.csv. cam1 is optional: without it,
    or with `use_right=False`, every sample has `right=None`.

    Either the sequence root (containing mav0/) or the mav0 directory itself
    can be passed.
    """

    def __init__(
        self,
        dataset_path: str | Path,
        use_right: bool = True,
        clahe_clip_limit: float | None = None,
    ) -> None:
        """Initialize reader.

        Args:
            dataset_path: Path to a EuRoC sequence or its mav0 directory
            use_right: Load cam1 images when they exist
            clahe_clip_limit: If set, apply CLAHE contrast enhancement
                (8x8 tiles) with this clip limit to every image

        Raises:
            FileNotFoundError: If required directories or data.csv are missing
            ValueError: If data.csv lists no images or is malformed
        """
        path = Path(dataset_path)
        if not path.exists():
            raise FileNotFoundError(f"Dataset path does not exist: {path}")
        if (path / "mav0").is_dir():
            path = path / "mav0"
        self.dataset_path = path

        self.cam0_data_path = path / "cam0" / "data"
        self.cam1_data_path = path / "cam1" / "data"
        self.csv_path = path / "cam0" / "data.csv"

        if not self.cam0_data_path.is_dir():
            raise FileNotFoundError(f"cam0/data directory not found: {self.cam0_data_path}")
        if not self.csv_path.exists():
            raise FileNotFoundError(f"cam0/data.csv not found: {self.csv_path}")

        self.is_stereo = use_right and self.cam1_data_path.is_dir()
        if use_right and not self.is_stereo:
            logger.info("No cam1 data in %s, reading mono sequence", path)

        self._clahe = None
        if clahe_clip_limit is not None:
            self._clahe = cv2.createCLAHE(clipLimit=clahe_clip_limit, tileGridSize=(8, 8))

        self._image_list = self._load_image_list()
        if not self._image_list:
            raise ValueError(f"No images found in {self.csv_path}")

        self._current_idx = 0

    def _load_image_list(self) -> list[tuple[int, str]]:
        """Parse cam0/data.csv.

        Format:
            #timestamp [ns],filename
            1403636579763555584,1403636579763555584.png

        Returns:
            List of (timestamp_ns, filename) in file order
        """
        image_list = []
        with open(self.csv_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                try:
                    timestamp_str, filename = line.split(",")
                    image_list.append((int(timestamp_str.strip()), filename.strip()))
                except ValueError as e:
                    raise ValueError(
                        f"Invalid line in {self.csv_path}: '{line}'\n"
                        f"Expected format: timestamp,filename"
                    ) from e
        return image_list

    def _read_image(self, path: Path, side: str) -> np.ndarray:
        if not path.exists():
            raise FileNotFoundError(f"{side} camera image not found: {path}")
        image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            raise ValueError(f"Failed to load {side.lower()} image: {path}")
        if self._clahe is not None:
            image = self._clahe.apply(image)
        return image

    def get_next(self) -> StereoSample | None:
        """Return the next (left, right, timestamp_ns), or None at the end.

        `right` is None for mono sequences. A right image missing from an
        otherwise stereo sequence is reported and returned as None.
        """
        if self._current_idx >= len(self._image_list):
            return None

        timestamp_ns, filename = self._image_list[self._current_idx]
        self._current_idx += 1

        left = self._read_image(self.cam0_data_path / filename, "Left")

        right = None
        if self.is_stereo:
            right_path = self.cam1_data_path / filename
            if right_path.exists():
                right = self._read_image(right_path, "Right")
            else:
                logger.warning("Right image missing for %d, using mono", timestamp_ns)

        return left, right, timestamp_ns

    def reset(self) -> None:
        """Restart from the first image."""
        self._current_idx = 0

    @property
    def timestamps(self) -> list[int]:
        return [ts for ts, _ in self._image_list]

    def __len__(self) -> int:
        return len(self._image_list)

    def __iter__(self) -> Iterator[StereoSample]:
        self.reset()
        return self

    def __next__(self) -> StereoSample:
        sample = self.get_next()
        if sample is None:
            raise StopIteration
        return sample
