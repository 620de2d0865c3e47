import math
import time
from warnings import warn

import matplotlib as mpl

from pydbgplot import configure, configure_logging, plot

# --- User configuration dictionary ---
CONFIG = {
    "LOG_LEVEL": "INFO",  # logging level: DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL
    "REDRAW_INTERVAL": 0.05,  # seconds between live window refreshes
    "CAPACITY": 100,  # samples kept per series
    "DURATION": 30.0,  # seconds to run
}


def main() -> None:
    """
    Stream sin/cos values into a live window.
    """
    configure_logging(CONFIG.get("LOG_LEVEL", "INFO"))
    configure(enabled=True, redraw_interval=CONFIG["REDRAW_INTERVAL"])

    start = time.monotonic()
    i = 0
    while time.monotonic() - start < CONFIG["DURATION"]:
        x = i / 100 * 2 * math.pi
        plot(
            ("sin(x)", (x, math.sin(x))),
            ("cos(x)", (x, math.cos(x))),
            caption="Live Trigonometry",
            x_desc="x",
            capacity=CONFIG["CAPACITY"],
            live=True,
            size=(1080, 720),
        )
        i += 1
        time.sleep(0.01)


if __name__ == "__main__":
    # Backend used by the live window process
    for optn, val in {
        "backend": "QtAgg",
        "font.size": 11,
        "lines.linewidth": 1.8,
    }.items():
        try:
            mpl.rcParams[optn] = val
        except KeyError:
            warn(f"mpl rcparams key '{optn}' not recognised as a valid rc parameter.")
    main()
