"""
代码生成路由 - 触发生成、浏览与下载生成文件
"""
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import Response as RawResponse

from api.dependencies import get_generation_service
from api.utils.headers import attachment_disposition
from application.dto import FileContentDTO, FileEntryDTO, SchemaSubmitDTO
from application.services.generation_service import GenerationService
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/generation",
    tags=["代码生成"],
)


@router.post("", summary="保存 schema 并生成代码", response_model=ApiResponse[dict[str, Any]])
async def generate(
    payload: SchemaSubmitDTO,
    service: GenerationService = Depends(get_generation_service),
):
    """
    保存 schema 后依次尝试各调用策略生成代码

    生成失败（包括工具缺失）不视为请求错误：响应为 200，`data.succeeded` 为 false，
    `data.text` 携带完整的诊断文本。
    """
    report = await service.generate(payload.filename, payload.content)
    data = report.to_dict()
    data["text"] = report.to_text()
    message = "Code generated successfully" if report.succeeded else "Code generation failed"
    return success_response(data=data, message=message)


@router.get("/files", summary="列出生成文件", response_model=ApiResponse[list[FileEntryDTO]])
async def list_generated(service: GenerationService = Depends(get_generation_service)):
    entries = await service.list_generated()
    return success_response(data=[FileEntryDTO.from_entry(e) for e in entries])


@router.get("/files/{filename}", summary="读取生成文件", response_model=ApiResponse[FileContentDTO])
async def read_generated(
    filename: str,
    service: GenerationService = Depends(get_generation_service),
):
    content = await service.read_generated(filename)
    return success_response(data=FileContentDTO(name=filename, content=content))


@router.get("/files/{filename}/download", summary="下载生成文件")
async def download_generated(
    filename: str,
    service: GenerationService = Depends(get_generation_service),
):
    content = await service.read_generated_bytes(filename)
    return RawResponse(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": attachment_disposition(filename)},
    )
