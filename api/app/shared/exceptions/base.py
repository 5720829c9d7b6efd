"""
Excepcion base para todas las excepciones personalizadas del servicio.
"""
from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Excepcion base de la aplicacion.
    Todas las excepciones del sync de encuestas heredan de esta clase, de modo
    que el handler global de FastAPI las convierte en respuestas JSON.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Inicializa la excepcion.

        Args:
            message: Mensaje de error descriptivo
            status_code: Codigo de estado HTTP con el que se expone en la API
            error_code: Codigo de error estable (para logs y clientes)
            details: Detalles adicionales del error
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Representacion serializable usada por el handler global."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }
