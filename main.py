from dotenv import load_dotenv

load_dotenv(override=True)

from drumline.config import load_config
from drumline.server import run_authority

def main():
    config = load_config()
    run_authority(config)

if __name__ == "__main__":
    main()
