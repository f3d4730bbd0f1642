from .stocks import QuoteSource, stock_source_id
from .subscribers import SubscriberSource
from .weather import WeatherSource
