from fastapi import Request

from addressiq.core.build_info import BuildInfo
from addressiq.core.config import Settings
from addressiq.services.aggregator import PropertyAggregator
from addressiq.services.cache import Cache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_aggregator(request: Request) -> PropertyAggregator:
    return request.app.state.aggregator


def get_cache(request: Request) -> Cache:
    return request.app.state.cache


def get_build_info(request: Request) -> BuildInfo:
    return request.app.state.build_info
