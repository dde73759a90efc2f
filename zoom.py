import os
import sys
import warnings
from argparse import ArgumentParser
from pathlib import Path

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import tensorflow as tf

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

from mandelzoom import (
    ComplexPoint,
    DispatchScheduler,
    FrameOrchestrator,
    FrameWriter,
    RenderConfig,
    RenderError,
    estimate_frame_count,
)


def select_device():
    """Prefer the first visible GPU, falling back to the CPU."""

    gpus = tf.config.list_physical_devices('GPU')
    if not gpus:
        log("No GPU found, using CPU")
        return '/CPU:0'
    try:
        for gpu in gpus:
            tf.config.experimental.set_memory_growth(gpu, True)
    except RuntimeError as e:
        log(e)
        return '/CPU:0'
    log("GPU found, using %s" % gpus[0].name)
    return '/GPU:0'


def build_parser():
    parser = ArgumentParser(description='Render the frames of a Mandelbrot zoom sequence.')

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='maximum number of escape-time iterations per pixel',
                        metavar='MAX_ITERATIONS', default=1000)

    parser.add_argument('--width', type=int,
                        dest='width', help='image width in pixels',
                        metavar='WIDTH', default=1024)

    parser.add_argument('--height', type=int,
                        dest='height', help='image height in pixels',
                        metavar='HEIGHT', default=512)

    parser.add_argument('--x-center', type=float,
                        dest='x_center', help='real part of the point to zoom into',
                        metavar='X_CENTER', default=-0.743643887037151)

    parser.add_argument('--y-center', type=float,
                        dest='y_center', help='imaginary part of the point to zoom into',
                        metavar='Y_CENTER', default=0.131825904205330)

    parser.add_argument('--zoom-start', type=float,
                        dest='zoom_start', help='zoom of the first frame; zoom 1 shows a 4 x 2 window',
                        metavar='ZOOM_START', default=1.0)

    parser.add_argument('--zoom-end', type=float,
                        dest='zoom_end', help='no frame is rendered beyond this zoom',
                        metavar='ZOOM_END', default=1e5)

    parser.add_argument('--zoom-factor', type=float,
                        dest='zoom_factor', help='the factor by which the zoom grows each frame, must be > 1',
                        metavar='ZOOM_FACTOR', default=1.05)

    parser.add_argument('--frame-dir', type=str,
                        dest='frame_dir', help='directory in which to store the frame sequence',
                        metavar='FRAME_DIR', default='./images')

    parser.add_argument('--format', type=str,
                        dest='format', help='file format for frames. Can be any extension supported by Pillow. Default: "jpg".',
                        metavar='FORMAT', default='jpg')

    parser.add_argument('--quality', type=int,
                        dest='quality', help='encoder quality for lossy formats (1-100)',
                        metavar='QUALITY', default=95)

    parser.add_argument('--digits', type=int,
                        dest='digits', help='width of the zero-padded frame number in file names',
                        metavar='DIGITS', default=5)

    parser.add_argument('--workers', type=int,
                        dest='workers', help='number of worker threads per frame (default: one per CPU)',
                        metavar='WORKERS', default=None)

    parser.add_argument('--device', type=str,
                        dest='device', help='TensorFlow device to render on, e.g. "/CPU:0" (default: first GPU if present)',
                        metavar='DEVICE', default=None)

    parser.add_argument('--pipelined', action='store_true',
                        help='encode each frame on a background thread while the next one is rendered')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow and hardware diagnostics.')

    return parser


def build_config(opt, parser):
    try:
        return RenderConfig(
            max_iter=opt.max_iterations,
            img_width=opt.width,
            img_height=opt.height,
            center=ComplexPoint(opt.x_center, opt.y_center),
            zoom_start=opt.zoom_start,
            zoom_end=opt.zoom_end,
            zoom_fact=opt.zoom_factor,
        )
    except ValueError as exc:
        parser.error(str(exc))


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    config = build_config(opt, parser)
    if opt.workers is not None and opt.workers < 1:
        parser.error("--workers must be at least 1.")
    if opt.digits < 1:
        parser.error("--digits must be at least 1.")

    log("TensorFlow version: %s" % tf.__version__)
    device = opt.device if opt.device is not None else select_device()

    try:
        writer = FrameWriter(Path(opt.frame_dir), image_format=opt.format, quality=opt.quality, digits=opt.digits)
        with DispatchScheduler(workers=opt.workers, device=device) as scheduler:
            log("Rendering about %d frames on %s with %d workers"
                % (estimate_frame_count(config), scheduler.device, scheduler.workers))
            orchestrator = FrameOrchestrator(config, scheduler, writer, pipelined=opt.pipelined)
            paths = orchestrator.run()
    except RenderError as exc:
        print()
        print("error: %s" % exc, file=sys.stderr)
        return 1

    print()
    log("Wrote %d frames to %s" % (len(paths), writer.frame_dir))
    return 0


if __name__ == '__main__':
    sys.exit(main())
