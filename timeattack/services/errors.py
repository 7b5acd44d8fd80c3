"""Common error handling for all services"""

class ServiceError(Exception):
    """Base exception for all service errors"""
    pass

class EngineError(ServiceError):
    """Base exception for session lifecycle errors"""
    pass

class DatabaseError(ServiceError):
    """Base exception for database-related errors"""
    pass

class TaskSourceError(ServiceError):
    """Base exception for task source errors"""
    pass

class NoActiveSessionError(EngineError):
    """Raised when an operation needs an open session and there is none"""
    pass

class SessionClosedError(EngineError):
    """Raised when a task is appended to a completed session"""
    pass

class NoActiveTaskError(EngineError):
    """Raised when an operation needs an active task and there is none"""
    pass

class NotAWorkTaskError(EngineError):
    """Raised when an operation needs the active task to be work"""
    pass

class AlreadyPausedError(EngineError):
    """Raised when opening a pause while one is already open"""
    pass

class NotPausedError(EngineError):
    """Raised when closing a pause that is not open"""
    pass

class TaskNotFoundError(TaskSourceError):
    """Raised when a task source has no task with the given id"""
    pass
