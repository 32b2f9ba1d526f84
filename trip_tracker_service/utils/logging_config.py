from datetime import datetime
import logging
import os


def setup_logging(level: int = logging.INFO, log_dir: str = 'logs') -> str:
    """Log to the console and to a timestamped file; returns the file path."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f'trip_tracker_{timestamp}.log')
    os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
    return log_file
