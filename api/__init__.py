"""
HTTP routers for the Sensor Data Ingestion API.
"""

from api.sensor_data import router as sensor_data_router

__all__ = ["sensor_data_router"]
