from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

class PredictionRequest(BaseModel):
    instances: List[Any]  # one object per instance, or bare values for single-input signatures
    signature_name: Optional[str] = None  # accepted for CloudML body compatibility

class PredictionResponse(BaseModel):
    predictions: List[Any]  # parallel to the request instances

class ErrorResponse(BaseModel):
    error: str

class SignatureInfo(BaseModel):
    path: str
    inputs: Dict[str, Dict[str, Any]]
    outputs: List[str]

class DiscoveryResponse(BaseModel):
    model_dir: Optional[str]
    default_signature: Optional[str]
    signatures: Dict[str, SignatureInfo] = Field(default_factory=dict)
    docs: str = "/docs"
