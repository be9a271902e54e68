"""
Pydantic schemas for iVisit Emergency Backend.

Contains all API request/response schemas organized by module.
"""

from .emergency import *
from .notification import *
from .sheet import *
from .responses import *
