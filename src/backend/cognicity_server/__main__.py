import argparse
import logging

from . import create_app
from .config import Config
from .logs import configure_logging
from .sample_data import generate_sample_layers

logger = logging.getLogger('cognicity_server')


def main(argv=None):
    parser = argparse.ArgumentParser(prog='cognicity-server', description='Serve disaster report data as GeoJSON')
    parser.add_argument('--generate-sample-data', metavar='DIR',
                        help='write sample GeoParquet layers to DIR and exit')
    parser.add_argument('--host', default=Config.HOST)
    parser.add_argument('--port', type=int, default=Config.PORT)
    parser.add_argument('--debug', action='store_true')
    args = parser.parse_args(argv)

    if args.generate_sample_data:
        configure_logging({key: getattr(Config, key) for key in dir(Config) if key.isupper()})
        paths = generate_sample_layers(args.generate_sample_data)
        logger.info('Generated %d sample layers in %s', len(paths), args.generate_sample_data)
        return 0

    app = create_app()
    logger.info('Application starting, listening on port %s', args.port)
    app.run(debug=args.debug, port=args.port, host=args.host, use_reloader=False)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
