from pydantic import BaseModel, ConfigDict

class LockInfo(BaseModel):
    """Terraform lock claim, as sent in LOCK/UNLOCK bodies and returned on conflicts."""
    model_config = ConfigDict(extra='ignore')

    ID: str = ''
    Operation: str = ''
    Info: str = ''
    Who: str = ''
    Version: str = ''
    Created: str = ''
    Path: str = ''
