import sys

from thumbprobe.cli import main

if __name__ == "__main__":
    sys.exit(main())
