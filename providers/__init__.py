from dashboard.provider_protocol import registry
from providers.exchange import ExchangeProvider, UsdCnyProvider
from providers.news import NewsProvider
from providers.stocks import ChartProvider, StocksProvider

registry.register(NewsProvider())
registry.register(StocksProvider())
registry.register(ChartProvider())
registry.register(ExchangeProvider())
registry.register(UsdCnyProvider())
