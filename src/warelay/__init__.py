"""WhatsApp relay API."""
