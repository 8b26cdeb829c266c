import os


def get_default_data_dir():
    # data/normalized next to the package, matching the repository layout.
    base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base, "data", "normalized")


def get_data_dir(config=None):
    data_dir = ((config or {}).get("data") or {}).get("dir") or ""
    return data_dir or get_default_data_dir()


def csv_path(data_dir, filename):
    return os.path.join(data_dir, filename)
