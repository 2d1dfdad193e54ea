import json
import logging
from typing import Dict, Any, List
import os
from pathlib import Path


class Config:
    # keys filled in when the file does not set them
    DEFAULTS = {
        "calibration_file": None,
        "image_width": 640,
        "image_height": 480,
        "rectification_alpha": 0.0,
        "matcher": {},
        "block_size": 5,
        "image_pairs": [],
        "rectify": True,
        "save_path_result": "result",
        "save_raw_disparity": False,
        "save_visualization": False,
        "log_level": "INFO",
        "log_file": None,
    }

    PATH_KEYS = ("calibration_file", "save_path_result", "log_file")

    def __init__(self, config_path: str, create_result_folder: bool = True):
        self.config_path = Path(config_path)
        self.config_data = self._load_config(config_path)
        self._apply_defaults()
        self._validate_image_config()
        self._validate_matcher_config()
        self._validate_output_config()
        self._resolve_paths()
        if create_result_folder and self.needs_result_folder():
            self._check_folder(self.config_data["save_path_result"])

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        with open(config_path, 'r', encoding='utf-8') as config_file:
            try:
                config_data = json.load(config_file)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in config file {config_path}: {e}") from e

        if not isinstance(config_data, dict):
            raise ValueError(f"Config file {config_path} must contain a JSON object")
        return config_data

    def _apply_defaults(self) -> None:
        for key, default_value in self.DEFAULTS.items():
            if key not in self.config_data:
                # copy mutable defaults so instances never share them
                self.config_data[key] = (
                    type(default_value)(default_value)
                    if isinstance(default_value, (dict, list)) else default_value
                )

    def _validate_image_config(self) -> None:
        """Validate rectified image size and rectification parameters."""
        width = self.config_data["image_width"]
        height = self.config_data["image_height"]
        for key, value in (("image_width", width), ("image_height", height)):
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{key} must be a positive integer, got {value!r}")

        alpha = self.config_data["rectification_alpha"]
        if not isinstance(alpha, (int, float)) or isinstance(alpha, bool):
            raise ValueError(f"rectification_alpha must be a number, got {alpha!r}")
        if alpha != -1 and not 0.0 <= alpha <= 1.0:
            raise ValueError(f"rectification_alpha must be in [0, 1] or -1, got {alpha}")

        if not isinstance(self.config_data["rectify"], bool):
            raise ValueError("rectify must be true or false")

    def _validate_matcher_config(self) -> None:
        """Validate matcher block and SGBM block size."""
        if not isinstance(self.config_data["matcher"], dict):
            raise ValueError("matcher must be a JSON object of matcher parameters")

        block_size = self.config_data["block_size"]
        if not isinstance(block_size, int) or isinstance(block_size, bool) \
                or block_size <= 0 or block_size % 2 == 0:
            raise ValueError(f"block_size must be a positive odd integer, got {block_size!r}")

    def _validate_output_config(self) -> None:
        for key in ("save_raw_disparity", "save_visualization"):
            if not isinstance(self.config_data[key], bool):
                raise ValueError(f"{key} must be true or false")

        pairs = self.config_data["image_pairs"]
        if not isinstance(pairs, list) or any(
                not isinstance(pair, (list, tuple)) or len(pair) != 2 for pair in pairs):
            raise ValueError("image_pairs must be a list of [left, right] paths")

        log_level = self.config_data["log_level"]
        if not isinstance(log_level, str) or not isinstance(logging.getLevelName(log_level.upper()), int):
            raise ValueError(f"log_level must be a logging level name, got {log_level!r}")

    def _resolve_paths(self) -> None:
        """Make relative paths relative to the folder of the config file."""
        base_dir = self.config_path.resolve().parent
        for key in self.PATH_KEYS:
            value = self.config_data.get(key)
            if value:
                self.config_data[key] = str(self._resolve(base_dir, value))

        self.config_data["image_pairs"] = [
            [str(self._resolve(base_dir, left)), str(self._resolve(base_dir, right))]
            for left, right in self.config_data["image_pairs"]
        ]

    @staticmethod
    def _resolve(base_dir: Path, value: str) -> Path:
        path = Path(os.path.expanduser(value))
        return path if path.is_absolute() else base_dir / path

    def needs_result_folder(self) -> bool:
        return self.config_data["save_raw_disparity"] or self.config_data["save_visualization"]

    def _check_folder(self, folder_name):
        counter = 1
        new_path = folder_name
        # never write into an earlier run's folder
        while os.path.exists(new_path):
            new_path = f"{folder_name}({counter})"
            counter += 1
        os.makedirs(new_path)
        self.config_data["save_path_result"] = new_path

    def get_image_pairs(self) -> List[List[str]]:
        return [list(pair) for pair in self.config_data["image_pairs"]]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.config_data)

    def __getattr__(self, name: str) -> Any:
        if name == "config_data":
            raise AttributeError(name)
        if name in self.config_data:
            return self.config_data[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")
