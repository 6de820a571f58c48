import logging
import sys
from pathlib import Path

FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

_NOISY = ('werkzeug', 'sqlalchemy.engine')


def setup_logging(level='INFO', log_file=None):
    """Configure the root logger once: stderr always, a file when asked.

    Calling it again replaces the handlers instead of stacking them.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding='utf-8')
        fh.setFormatter(fmt)
        root.addHandler(fh)

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
