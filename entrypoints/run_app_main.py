import runpy

from alarmd.log import setup_logging


def main():
    try:
        # Equivalent to: python -m alarmd.dev.run_app
        runpy.run_module("alarmd.dev.run_app", run_name="__main__")
    except Exception:
        setup_logging().bind(tag="entrypoint").exception("alarmd exited with an error")
        raise


if __name__ == "__main__":
    main()
