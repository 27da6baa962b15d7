"""
Schema 文件路由 - 提交、列表与读取
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_generation_service
from application.dto import FileContentDTO, FileEntryDTO, SchemaSubmitDTO, SubmitResultDTO
from application.services.generation_service import GenerationService
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/schemas",
    tags=["Schema"],
)


@router.post("", summary="提交 schema 文件", response_model=ApiResponse[SubmitResultDTO])
async def submit_schema(
    payload: SchemaSubmitDTO,
    service: GenerationService = Depends(get_generation_service),
):
    """
    保存 schema 文件到 schema 目录（同名覆盖）

    - **filename**: 文件名，不能包含路径分隔符
    - **content**: 文件内容
    """
    result = await service.submit(payload.filename, payload.content)
    data = SubmitResultDTO(
        path=str(result.path),
        size=result.size,
        files=[FileEntryDTO.from_entry(e) for e in result.files],
    )
    message = "File saved successfully"
    if result.listing_error:
        message += f" (error listing schema directory: {result.listing_error})"
    return success_response(data=data, message=message)


@router.get("", summary="列出 schema 文件", response_model=ApiResponse[list[FileEntryDTO]])
async def list_schemas(service: GenerationService = Depends(get_generation_service)):
    entries = await service.list_schemas()
    return success_response(data=[FileEntryDTO.from_entry(e) for e in entries])


@router.get("/{filename}", summary="读取 schema 文件", response_model=ApiResponse[FileContentDTO])
async def read_schema(
    filename: str,
    service: GenerationService = Depends(get_generation_service),
):
    content = await service.read_schema(filename)
    return success_response(data=FileContentDTO(name=filename, content=content))
