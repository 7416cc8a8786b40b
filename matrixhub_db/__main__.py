"""Allow running the toolkit with python -m matrixhub_db"""

from matrixhub_db.cli import main

if __name__ == "__main__":
    main()
