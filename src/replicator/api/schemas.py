# holds pydantic request and response models
# Single Score
# Request
#   request_id : Optional[str]
#   features: List[float] in training column order
#
# Response
#   request_id : (echo)
#   result: replicator_service.py output
#
# Batch Score
# Request
#   request_id : Optional[str]
#   items: List[{item_id?:str, features: List[float]}]
#
# Batch Response
#   request_id: (echo)
#   results: List[{ item_id?: str, result?: dict, error?:{type, message}}]
#   summary: {total, succeeded, failed}

from pydantic import BaseModel, ConfigDict
from typing import Dict, List, Optional, Any


class ScoreRequest(BaseModel):
    request_id: Optional[str] = None
    features: List[float]
    model_config = ConfigDict(extra='forbid')


class ScoreResponse(BaseModel):
    request_id: Optional[str] = None
    result: Dict[str, Any]


class BatchItem(BaseModel):
    item_id: Optional[str] = None
    features: List[float]
    model_config = ConfigDict(extra='forbid')


class ErrorDetail(BaseModel):
    type: str
    message: str


class ItemResult(BaseModel):
    item_id: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[ErrorDetail] = None


class Summary(BaseModel):
    total: int
    succeeded: int
    failed: int


class BatchScoreRequest(BaseModel):
    request_id: Optional[str] = None
    items: List[BatchItem]
    model_config = ConfigDict(extra='forbid')


class BatchScoreResponse(BaseModel):
    request_id: Optional[str] = None
    results: List[ItemResult]
    summary: Summary
