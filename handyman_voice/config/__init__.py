"""
Configuration package for the handyman voice bridge.

- constants: protocol discriminants, audio formats, the booking tool name and
  other values shared across modules.
- settings: environment-driven settings (API keys, model, VAD thresholds,
  notification numbers), loaded from ``.env`` when present.
- logging_config: console and rotating-file logging setup.

```python
from handyman_voice.config.constants import LOGGER_NAME
from handyman_voice.config.logging_config import configure_logging

logger = configure_logging()
logger.info("Application started")
```
"""
