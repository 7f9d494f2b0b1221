from pathlib import Path

# 项目根目录
BASE_PATH = Path(__file__).resolve().parent.parent
