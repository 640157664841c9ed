import sys

from workbook_extraction.cli import main

if __name__ == "__main__":
    sys.exit(main())
