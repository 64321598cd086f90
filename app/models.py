from dataclasses import dataclass, field
from enum import Enum

# Document store collections
IMPORTS = "drive_imports"
COURSES = "courses"
CATEGORIES = "categories"
QUIZZES = "quizzes"
USER_TOKENS = "user_tokens"

SOURCE_DRIVE = "google_drive"
SOURCE_NOTION = "notion"
COURSE_SOURCE_LABEL = "Google Drive/Notion"

NOTION_PAGE_MIME = "application/vnd.notion.page"


class ImportStatus(str, Enum):
    PENDING_AI = "PENDING_AI"
    READY_FOR_AI = "READY_FOR_AI"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


# PROCESSING is included so a run that died after extraction is retried.
PENDING_STATUSES = (
    ImportStatus.PENDING_AI.value,
    ImportStatus.READY_FOR_AI.value,
    ImportStatus.PROCESSING.value,
)

COURSE_READY = "READY"


@dataclass
class FileDescriptor:
    file_id: str
    file_name: str
    mime_type: str
    access_token: str | None
    source: str = SOURCE_DRIVE


@dataclass
class ImportRecord:
    id: str
    file_id: str
    file_name: str
    mime_type: str
    owner_user_id: str
    access_token: str | None
    status: str
    timestamp: str
    source: str = SOURCE_DRIVE
    processed_at: str | None = None
    completed_at: str | None = None
    error: str | None = None

    @classmethod
    def from_doc(cls, doc: dict) -> "ImportRecord":
        return cls(
            id=doc["id"],
            file_id=doc.get("fileId") or doc["id"],
            file_name=doc.get("fileName") or "Untitled",
            mime_type=doc.get("mimeType") or "",
            owner_user_id=doc.get("userId", ""),
            access_token=doc.get("accessToken"),
            status=doc.get("status", ImportStatus.PENDING_AI.value),
            timestamp=doc.get("timestamp", ""),
            source=doc.get("source") or SOURCE_DRIVE,
            processed_at=doc.get("processedAt"),
            completed_at=doc.get("completedAt"),
            error=doc.get("error"),
        )

    def to_doc(self) -> dict:
        doc = {
            "fileId": self.file_id,
            "fileName": self.file_name,
            "mimeType": self.mime_type,
            "userId": self.owner_user_id,
            "accessToken": self.access_token,
            "source": self.source,
            "status": self.status,
            "timestamp": self.timestamp,
        }
        for key, value in (
            ("processedAt", self.processed_at),
            ("completedAt", self.completed_at),
            ("error", self.error),
        ):
            if value is not None:
                doc[key] = value
        return doc

    def descriptor(self) -> FileDescriptor:
        return FileDescriptor(
            file_id=self.file_id,
            file_name=self.file_name,
            mime_type=self.mime_type,
            access_token=self.access_token,
            source=self.source,
        )


@dataclass
class Course:
    id: str
    title: str
    source: str
    status: str
    creator_id: str
    created_at: str
    generated_at: str
    category_ids: list[str] = field(default_factory=list)

    def to_doc(self) -> dict:
        return {
            "title": self.title,
            "source": self.source,
            "status": self.status,
            "creatorId": self.creator_id,
            "createdAt": self.created_at,
            "generatedAt": self.generated_at,
            "categoryIds": list(self.category_ids),
        }


@dataclass
class Category:
    id: str
    course_id: str
    title: str
    quiz_count: int
    created_at: str

    def to_doc(self) -> dict:
        return {
            "courseId": self.course_id,
            "title": self.title,
            "quizCount": self.quiz_count,
            "createdAt": self.created_at,
        }


@dataclass
class Quiz:
    id: str
    category_id: str
    course_id: str
    question: str
    choices: list[str]
    correct_answer: str
    created_at: str

    def to_doc(self) -> dict:
        return {
            "categoryId": self.category_id,
            "courseId": self.course_id,
            "question": self.question,
            "choices": list(self.choices),
            "correctAnswer": self.correct_answer,
            "createdAt": self.created_at,
        }


@dataclass
class UserTokens:
    user_id: str
    drive_access_token: str | None
    drive_refresh_token: str | None
    updated_at: str | None = None

    @classmethod
    def from_doc(cls, doc: dict) -> "UserTokens":
        return cls(
            user_id=doc.get("userId") or doc["id"],
            drive_access_token=doc.get("driveAccessToken"),
            drive_refresh_token=doc.get("driveRefreshToken"),
            updated_at=doc.get("updatedAt"),
        )

    def to_doc(self) -> dict:
        return {
            "userId": self.user_id,
            "driveAccessToken": self.drive_access_token,
            "driveRefreshToken": self.drive_refresh_token,
            "updatedAt": self.updated_at,
        }
