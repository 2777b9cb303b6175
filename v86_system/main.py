import asyncio
import logging
import sys
from functools import partial

from . import args as app_args
from . import engine, logging_utils, machine, session, values

logger = logging.getLogger(__name__)


def main(argv=None):
    """Parses command-line arguments, builds the machine and runs the console session."""
    options = app_args.parse_args(sys.argv[1:] if argv is None else argv)
    logging_utils.setup_logging(options.debug_file)

    try:
        machine_config = machine.build_machine_config(options)
    except values.InvalidSizeFormat as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    engine_factory = partial(engine.QemuEngine, executable=options.qemu_executable)
    try:
        return_code = asyncio.run(session.Session(machine_config, engine_factory=engine_factory).run())
    except engine.EngineUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    logger.debug("Exiting with code %d", return_code)
    sys.exit(return_code)
