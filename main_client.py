#!/usr/bin/env python3
"""
Chat Sync Client - Main Entry Point

Usage:
    python main_client.py [--address HOST:PORT] [--username NAME] [--cli]

Modes:
    (default)    Launch with PyQt6 GUI
    --cli        Launch with command-line interface
"""

import sys
import os
import argparse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def run_gui_client(config):
    """Run the GUI client."""
    try:
        from chat_client.ui.client_gui import main as gui_main
    except ImportError:
        print("[ERROR] PyQt6 not installed. Install with: pip install PyQt6")
        sys.exit(1)

    gui_main(config)


def run_cli_client(config, username: str = None):
    """Run the CLI client."""
    import asyncio
    from chat_client.main_client import ChatSyncClient

    if not username:
        username = input("Enter username: ").strip()

    client = ChatSyncClient(config)

    try:
        asyncio.run(client.interactive_mode(username))
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted by user")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Chat Sync Client')
    parser.add_argument('--address', type=str, default=None,
                        help='Server address, host:port or http(s) URL (default: $CHAT_SERVER_ADDRESS or http://localhost:3030)')
    parser.add_argument('--username', type=str, default=None,
                        help='Username for chat (CLI mode only; asked if missing)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Log level (default: $CHAT_LOG_LEVEL or INFO)')
    parser.add_argument('--cli', action='store_true',
                        help='Run in command-line mode (GUI is default)')

    args = parser.parse_args()

    from chat_client.utils.config import ClientConfig
    from chat_client.utils.logger import logger

    try:
        config = ClientConfig.from_env(address=args.address, log_level=args.log_level)
        logger.set_level(config.log_level)
    except ValueError as e:
        parser.error(str(e))

    if args.cli:
        run_cli_client(config, args.username)
    else:
        run_gui_client(config)


if __name__ == "__main__":
    main()
