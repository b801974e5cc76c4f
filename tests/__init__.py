from pathlib import Path
import sys

# Make the stablepair package importable from src/ when it is not installed
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
