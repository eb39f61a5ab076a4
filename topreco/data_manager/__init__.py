from .event_data_manager import EventDataManager

__all__ = ['EventDataManager']
