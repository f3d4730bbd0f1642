from .clock import ClockLayer
from .stocks import StocksLayer
from .subscribers import SubscribersLayer
from .weather import WeatherLayer
