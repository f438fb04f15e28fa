#!/usr/bin/env python3
"""
Sheet Quiz Bot - Main Entry Point

This script runs the Discord quiz bot. Configure your bot token and
spreadsheet in config.json or set the environment variables below.

Usage:
    python main.py              Run the bot
    python main.py authorize    Create token.json for Google Sheets access

Configuration:
    1. Copy config.example.json to config.json and fill it in
    2. Or set the environment variables below

Environment Variables:
    DISCORD_BOT_TOKEN: Your Discord bot token (overrides config.json)
    SHEET_ID: Spreadsheet holding the quiz sheets
    DISCORD_CHANNEL_NAME_PREFIX: Only channels whose name starts with this are used
    GOOGLE_CREDENTIALS_PATH / GOOGLE_TOKEN_PATH: Google credential files
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path


def load_config():
    """Load configuration from config.json file."""
    config_path = Path("config.json")

    if not config_path.exists():
        print("❌ Error: config.json not found!")
        print("Please copy config.example.json to config.json and configure it.")
        sys.exit(1)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
        return config
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in config.json: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading config.json: {e}")
        sys.exit(1)


def get_bot_token(config):
    """Get bot token from environment variable or config file."""
    # Environment variable takes precedence
    token = os.getenv('DISCORD_BOT_TOKEN')
    if token:
        return token

    # Fall back to config file
    token = config.get('bot', {}).get('token')
    if not token or token == "YOUR_DISCORD_BOT_TOKEN_HERE":
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Update the 'token' field in config.json")
        sys.exit(1)

    return token


def setup_logging_from_config(config):
    """Set up logging based on configuration."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, log_config.get('level', 'INFO').upper())
    log_directory = Path(log_config.get('log_directory', './logs/'))

    # Create logs directory
    log_directory.mkdir(exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)


async def run_bot_with_config():
    """Run the bot with configuration."""
    config = load_config()
    setup_logging_from_config(config)
    token = get_bot_token(config)

    from quizbot.bot import run_bot
    await run_bot(token, config)


async def authorize_with_config():
    """Run the one-time Google consent flow and store the token."""
    config = load_config()
    setup_logging_from_config(config)
    sheets_config = config.get('sheets', {})
    credentials_path = os.getenv('GOOGLE_CREDENTIALS_PATH') or sheets_config.get('credentials_path', 'credentials.json')
    token_path = os.getenv('GOOGLE_TOKEN_PATH') or sheets_config.get('token_path', 'token.json')

    from quizbot.sheets_auth import authorize_interactively
    await authorize_interactively(credentials_path, token_path)
    print(f"✅ Token stored to {token_path}")


if __name__ == "__main__":
    try:
        if len(sys.argv) > 1 and sys.argv[1] == "authorize":
            asyncio.run(authorize_with_config())
        else:
            print("🤖 Starting Sheet Quiz Bot...")
            asyncio.run(run_bot_with_config())
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
    except Exception as e:
        print(f"❌ Failed to start bot: {e}")
        sys.exit(1)
