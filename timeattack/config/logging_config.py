import logging
from pathlib import Path
from typing import Optional

from timeattack.config.settings import settings

def setup_logging(debug: bool = False, log_dir: Optional[Path] = None):
    """Configure logging for the application"""
    # Create logs directory if it doesn't exist
    log_dir = log_dir or settings.LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    debug = debug or settings.DEBUG

    # Console only shows problems unless debugging
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_dir / "timeattack.log"),
            console_handler
        ]
    )
    
    logger = logging.getLogger(__name__)
    logger.debug("Logging initialized")
