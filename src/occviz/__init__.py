try:
    from importlib.metadata import version, PackageNotFoundError

    __version__ = version("occ-viz")
except PackageNotFoundError:
    __version__ = "0+unknown"
