"""WhatsApp personal-assistant bridge: bridge, processor and heartbeat processes."""
