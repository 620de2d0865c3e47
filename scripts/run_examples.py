import math

from pydbgplot import Sample, configure, configure_logging, flush, plot

# --- User configuration dictionary ---
CONFIG = {
    "LOG_LEVEL": "INFO",  # logging level: DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL
    "OUTPUT_DIR": ".plots",  # where plots without an explicit path are written
    "STEPS": 100,  # iterations per example
}


def trigonometry(steps: int) -> None:
    """Two series with explicit x values."""
    for i in range(steps):
        x = i / steps * 2 * math.pi
        plot(
            ("sin(x)", (x, math.sin(x))),
            ("cos(x)", (x, math.cos(x))),
            caption="Trigonometry",
            x_desc="x",
            render_on="exit",
        )


def options(steps: int) -> None:
    """Fixed ranges, size, axis descriptions and a JPEG output."""
    for i in range(steps):
        plot(
            ("i", i),
            caption="Options",
            size=(400, 300),
            path="plots/Options.jpg",
            x_desc="X Description",
            y_desc="Y Description",
            x_range=(0, 500),
            y_range=(0, 500),
            render_on="exit",
        )


def renaming(steps: int) -> None:
    """Legend labels differing from the series names, implicit x."""
    for a in range(min(steps, 10)):
        b = math.sin(a / 2) * 10
        c = 5 - a
        plot(
            Sample("a", a, label="Alice"),
            Sample("b", b, label="Bob"),
            Sample("c", c, label="Charlie"),
            caption="Renaming",
        )


def main() -> None:
    """
    Run all static examples.
    """
    configure_logging(CONFIG.get("LOG_LEVEL", "INFO"))
    configure(enabled=True, output_dir=CONFIG["OUTPUT_DIR"])

    steps = CONFIG["STEPS"]
    trigonometry(steps)
    options(steps)
    renaming(steps)

    # Deferred plots are also written at interpreter exit
    flush()


if __name__ == "__main__":
    main()
