# Copyright 2026 TIER IV, inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command line entry point: ``python -m cfn_language_server``."""

import argparse

from . import __version__
from .config import ServerConfig
from .server.base_server import CfnLanguageServer


def main(argv=None):
    parser = argparse.ArgumentParser(description="CloudFormation / SAM YAML language server")
    parser.add_argument("--stdio", action="store_true", help="communicate over stdin/stdout (default)")
    parser.add_argument("--log-level", default=None, help="logging level (default: INFO)")
    parser.add_argument("--log-file", default=None, help="also write logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    config = ServerConfig.from_env()
    if args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_file = args.log_file
    logger = config.set_logging()
    logger.info(f"Starting cfn-language-server {__version__}")

    CfnLanguageServer(config).start()


if __name__ == "__main__":
    main()
