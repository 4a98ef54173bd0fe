"""Control audio volumes with physical sliders connected over a serial port."""

__version__ = "0.1.0"