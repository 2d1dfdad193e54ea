import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from config.config import Config
from src_dense_stereo.dense_stereo import DenseStereo
from src_dense_stereo.disparity.file_manager import DisparityFileManager
from src_dense_stereo.exceptions import DenseStereoError
from src_dense_stereo.image_io import save_pgm
from utils.file_operations import PathManager
from utils.logger_config import LoggerConfig, get_logger

DEFAULT_CONFIG = "config/config_dense_stereo.json"


def load_config(config_path: str) -> Config:
    """
    Load configuration from a JSON file.

    Args:
        config_path (str): Path to the configuration JSON file.

    Returns:
        Config: Loaded configuration object.
    """
    return Config(config_path)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dense-stereo",
        description="Compute disparity images for rectified or raw stereo PGM pairs."
    )
    parser.add_argument("images", nargs="*",
                        help="left/right image files, given pairwise "
                             "(defaults to image_pairs of the config)")
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG,
                        help=f"configuration file (default: {DEFAULT_CONFIG})")
    parser.add_argument("--no-rectify", action="store_true",
                        help="treat the inputs as already rectified")
    parser.add_argument("--log-level", default=None,
                        help="override log_level of the config")
    args = parser.parse_args(argv)
    if len(args.images) % 2:
        parser.error("images must be given as left/right pairs")
    return args


def configure_logging(level: str, log_file: Optional[str]) -> None:
    # modules configure the root logger with defaults on import
    LoggerConfig.setup_root_logger()
    LoggerConfig.set_level(level)
    if log_file:
        LoggerConfig.add_file_handler(Path(log_file))


def collect_pairs(args: argparse.Namespace, config: Config) -> List[Tuple[str, str]]:
    if args.images:
        return list(zip(args.images[0::2], args.images[1::2]))
    return [tuple(pair) for pair in config.get_image_pairs()]


def process_pair(stereo: DenseStereo, config: Config, file_manager: Optional[DisparityFileManager],
                 left_path: str, right_path: str, rectify: bool) -> None:
    """
    Process one image pair and write its disparity images.

    Raises:
        DenseStereoError: If any stage fails for this pair
    """
    if file_manager is None:
        stereo.process_image_files(left_path, right_path, rectify=rectify)
        return

    left, right = stereo.load_image_pair(left_path, right_path)
    disparity_left, disparity_right = stereo.compute_raw_disparity(left, right, rectify=rectify)
    output_left, output_right = stereo.normalize_disparity(disparity_left, disparity_right)
    save_pgm(output_left, stereo.disparity_output_path(left_path))
    save_pgm(output_right, stereo.disparity_output_path(right_path))

    pair_name = PathManager.pair_name(left_path, right_path)
    output_path = file_manager.setup_output_directory(pair_name)
    if config.save_raw_disparity:
        file_manager.save_raw_disparity(disparity_left, disparity_right, output_path, pair_name)
    if config.save_visualization:
        file_manager.save_disparity_visualization(disparity_left, output_path, pair_name)

    processor = stereo.disparity_processor
    metadata = processor.create_disparity_metadata(
        disparity_left,
        getattr(stereo.matcher, 'get_configuration_info', dict)(),
    )
    metadata['inputs'] = {'left': str(left_path), 'right': str(right_path), 'rectified': rectify}
    metadata['calibration'] = stereo.calibration.get_calibration_summary()
    file_manager.save_disparity_metadata(metadata, output_path, pair_name)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Command line entry point.

    Every pair is processed independently; a failing pair is logged and
    skipped. Returns 1 if any pair failed.
    """
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"ERROR: cannot load configuration {args.config}: {e}", file=sys.stderr)
        return 2

    try:
        configure_logging(args.log_level or config.log_level, config.log_file)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    logger = get_logger(__name__)

    pairs = collect_pairs(args, config)
    if not pairs:
        logger.error("No image pairs given on the command line or in the configuration")
        return 2

    try:
        stereo = DenseStereo.from_config(config)
    except (DenseStereoError, ValueError) as e:
        logger.error(f"Cannot set up dense stereo: {e}")
        return 2

    file_manager = None
    if config.needs_result_folder():
        file_manager = DisparityFileManager(Path(config.save_path_result))

    rectify = config.rectify and not args.no_rectify
    failed = 0
    for left_path, right_path in pairs:
        try:
            process_pair(stereo, config, file_manager, left_path, right_path, rectify)
        except DenseStereoError as e:
            failed += 1
            logger.error(f"Skipping pair {left_path}, {right_path}: {e}")

    logger.info(f"Processed {len(pairs) - failed}/{len(pairs)} pairs")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
