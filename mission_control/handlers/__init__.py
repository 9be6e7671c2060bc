# mission_control/handlers/__init__.py
from __future__ import annotations
from aiogram import Dispatcher

from mission_control.handlers import start as start_handlers
from mission_control.handlers import templates as templates_handlers
from mission_control.handlers import missions as missions_handlers


def register(dp: Dispatcher) -> None:
    """
    Единая точка регистрации всех роутеров.
    Порядок важен: команды раньше, ответы-сабмиты (missions) последними.
    """
    dp.include_router(start_handlers.router)
    dp.include_router(templates_handlers.router)
    dp.include_router(missions_handlers.router)
