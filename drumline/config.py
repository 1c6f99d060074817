from dataclasses import dataclass
import os
from dotenv import load_dotenv

@dataclass
class Config:
    listen_host: str
    listen_port: int
    storage_path: str
    log_path: str
    log_console: bool

def load_config():
    load_dotenv(override=True)
    return Config(
        listen_host=os.getenv("DRUMLINE_LISTEN_HOST", "127.0.0.1"),
        listen_port=int(os.getenv("DRUMLINE_LISTEN_PORT", 8765)),
        storage_path=os.getenv("DRUMLINE_STORAGE_PATH", "drumline-storage.json"),
        log_path=os.getenv("DRUMLINE_LOG_PATH", "drumline.log"),
        log_console=os.getenv("DRUMLINE_LOG_CONSOLE", "false").lower() == "true",
    )
