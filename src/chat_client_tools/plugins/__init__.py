from .greet_plugin import GreetClientTool, GreetPlugin
from .ui_plugin import UILogHandler, UIPlugin

__all__ = ["GreetClientTool", "GreetPlugin", "UILogHandler", "UIPlugin"]
