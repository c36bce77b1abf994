"""内容存储：图片二进制的本地与 S3 实现。

节点表只保存 ``content_ref``；字节内容由这里按引用存取。引擎从不读写内容，
服务层在上传时写入、在删除叶子节点后按引用清理。
"""

from __future__ import annotations

import mimetypes
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import status
from fastapi.responses import FileResponse, RedirectResponse, Response

from app.packages.library.core.config import Settings
from app.packages.library.core.constants import HTTP_STATUS_BAD_REQUEST, HTTP_STATUS_NOT_FOUND
from app.packages.library.core.exceptions import AppException
from app.packages.library.core.logger import logger


def _norm_mime(name: str) -> str:
    mime, _ = mimetypes.guess_type(name)
    return mime or "application/octet-stream"


def new_content_ref(name: str) -> str:
    """为一次上传生成内容引用：同名文件多次上传也不会共用同一份内容。"""
    return f"{uuid.uuid4().hex}-{name}"


class ContentStore:
    """内容存储接口。"""

    def put(self, ref: str, data: bytes, *, content_type: Optional[str] = None) -> str:
        raise NotImplementedError

    def read(self, ref: str) -> bytes:
        raise NotImplementedError

    def exists(self, ref: str) -> bool:
        raise NotImplementedError

    def delete(self, ref: str) -> None:
        raise NotImplementedError

    def delete_many(self, refs: Iterable[str]) -> List[str]:
        """逐个删除，返回删除失败的引用（不抛出）。"""
        failed: List[str] = []
        for ref in refs:
            try:
                self.delete(ref)
            except Exception:
                logger.exception("Failed to delete content %s", ref)
                failed.append(ref)
        return failed

    def open_response(self, ref: str, *, filename: str, media_type: Optional[str] = None) -> Response:
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalContentStore(ContentStore):
    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise AppException(f"无法创建本地根目录: {exc}", status.HTTP_500_INTERNAL_SERVER_ERROR) from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, ref: str) -> Path:
        rel = (ref or "").strip().lstrip("/")
        if not rel:
            raise AppException("非法路径: 内容引用为空", HTTP_STATUS_BAD_REQUEST)
        candidate = (self.root / rel).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise AppException("非法路径: 越权访问", HTTP_STATUS_BAD_REQUEST) from exc
        return candidate

    def put(self, ref: str, data: bytes, *, content_type: Optional[str] = None) -> str:
        target = self._resolve(ref)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)
        return ref

    def read(self, ref: str) -> bytes:
        target = self._resolve(ref)
        if not target.is_file():
            raise AppException("文件不存在", HTTP_STATUS_NOT_FOUND)
        return target.read_bytes()

    def exists(self, ref: str) -> bool:
        return self._resolve(ref).is_file()

    def delete(self, ref: str) -> None:
        self._resolve(ref).unlink(missing_ok=True)

    def open_response(self, ref: str, *, filename: str, media_type: Optional[str] = None) -> Response:
        target = self._resolve(ref)
        if not target.is_file():
            raise AppException("文件不存在", HTTP_STATUS_NOT_FOUND)
        return FileResponse(
            str(target),
            media_type=media_type or _norm_mime(filename),
            filename=filename,
            content_disposition_type="inline",
        )


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3ContentStore(ContentStore):
    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        prefix: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.region = region
        self.prefix = (prefix or "").strip("/")
        self._client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
        )

    # 拼接基于 prefix 的对象 key
    def _join_key(self, ref: str) -> str:
        rel = (ref or "").lstrip("/")
        if not rel:
            raise AppException("非法路径: 内容引用为空", HTTP_STATUS_BAD_REQUEST)
        return f"{self.prefix}/{rel}" if self.prefix else rel

    def put(self, ref: str, data: bytes, *, content_type: Optional[str] = None) -> str:
        self._client.put_object(
            Bucket=self.bucket,
            Key=self._join_key(ref),
            Body=data,
            ContentType=content_type or _norm_mime(ref),
        )
        return ref

    def read(self, ref: str) -> bytes:
        try:
            obj = self._client.get_object(Bucket=self.bucket, Key=self._join_key(ref))
        except ClientError as exc:
            raise AppException("文件不存在", HTTP_STATUS_NOT_FOUND) from exc
        return obj["Body"].read()

    def exists(self, ref: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=self._join_key(ref))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise
        return True

    def delete(self, ref: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=self._join_key(ref))

    def delete_many(self, refs: Iterable[str]) -> List[str]:
        keys = {self._join_key(ref): ref for ref in refs}
        failed: List[str] = []
        items = [{"Key": key} for key in keys]
        # 批量删除（分批防止一次过多）
        for i in range(0, len(items), 1000):
            batch = items[i : i + 1000]
            try:
                resp = self._client.delete_objects(Bucket=self.bucket, Delete={"Objects": batch})
            except (BotoCoreError, ClientError):
                logger.exception("S3 batch delete failed for %s objects", len(batch))
                failed.extend(keys[item["Key"]] for item in batch)
                continue
            for err in resp.get("Errors", []):
                failed.append(keys.get(err.get("Key"), err.get("Key")))
        return failed

    def _presign(self, *, key: str, filename: Optional[str] = None) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = f"inline; filename=\"{filename}\""
        try:
            return self._client.generate_presigned_url("get_object", Params=params, ExpiresIn=300)
        except (BotoCoreError, ClientError) as exc:
            raise AppException(f"预签名 URL 生成失败: {exc}", status.HTTP_500_INTERNAL_SERVER_ERROR) from exc

    def open_response(self, ref: str, *, filename: str, media_type: Optional[str] = None) -> Response:
        return RedirectResponse(self._presign(key=self._join_key(ref), filename=filename))


def build_content_store(settings: Settings) -> ContentStore:
    t = (settings.content_backend or "").upper()
    if t == "LOCAL":
        return LocalContentStore(settings.content_local_root_path)
    if t == "S3":
        if not (settings.s3_bucket and settings.s3_region):
            raise AppException("S3 配置不完整", HTTP_STATUS_BAD_REQUEST)
        return S3ContentStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            prefix=settings.s3_prefix,
            endpoint_url=settings.s3_endpoint_url,
        )
    raise AppException("不支持的存储类型", HTTP_STATUS_BAD_REQUEST)
