from fastapi import HTTPException


class HTTP400(HTTPException):
    """400 Bad Request"""

    def __init__(self, detail: str = 'Bad request'):
        super().__init__(status_code=400, detail=detail)


class HTTP403(HTTPException):
    """403 Forbidden"""

    def __init__(self, detail: str = 'Forbidden'):
        super().__init__(status_code=403, detail=detail)


class HTTP404(HTTPException):
    """404 Not Found"""

    def __init__(self, detail: str = 'Not found'):
        super().__init__(status_code=404, detail=detail)


class HTTP502(HTTPException):
    """502 Bad Gateway, used when the CRM behind an integration can't be reached"""

    def __init__(self, detail: str = 'Bad gateway'):
        super().__init__(status_code=502, detail=detail)
