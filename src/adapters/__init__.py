"""Platform adapters: Discord as the source, Telegram Bot API as the destination."""
