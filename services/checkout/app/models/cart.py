from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class CartScope(str, Enum):
    GUEST = "guest"
    USER = "user"


class UploadedFile(BaseModel):
    """A file already pushed to the upload service. Only the URL matters here."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    cloud_url: str | None = Field(None, alias="cloudUrl")
    name: str = ""


class CartAddress(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(None, alias="_id")
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    mobile_number: str = ""


# Service details are captured from free-form UI input, so required fields are
# optional here and checked by the order item builder instead.


class PorterDetails(BaseModel):
    pickup_address: CartAddress | None = None
    delivery_address: CartAddress | None = None
    distance: Any = None
    weight: str | None = None
    dimensions: dict[str, str] | None = None
    phone: str | None = None
    notes: str | None = None
    is_urgent: bool = False


class PhotoPrintDetails(BaseModel):
    print_type: Literal["photo"] = "photo"
    photo_size: str | None = None
    copies: Any = None
    photos: list[UploadedFile] = Field(default_factory=list)
    notes: str | None = None


class DocumentPrintDetails(BaseModel):
    print_type: Literal["document"] = "document"
    number_of_pages: Any = None
    copies: Any = None
    color_printing: bool = False
    paper_size: str | None = None
    documents: list[UploadedFile] = Field(default_factory=list)
    notes: str | None = None


PrintDetails = Annotated[
    Union[PhotoPrintDetails, DocumentPrintDetails],
    Field(discriminator="print_type"),
]


class ProductLineItem(BaseModel):
    service_type: Literal["product"] = "product"
    id: str
    name: str = ""
    quantity: int = 1
    selling_price: float = Field(0, ge=0)


class PorterLineItem(BaseModel):
    service_type: Literal["porter"] = "porter"
    id: str
    name: str = "Porter service"
    selling_price: float = Field(0, ge=0)
    service_details: PorterDetails = Field(default_factory=PorterDetails)

    @property
    def quantity(self) -> int:
        return 1


class PrintoutLineItem(BaseModel):
    service_type: Literal["printout"] = "printout"
    id: str
    name: str = "Printout service"
    selling_price: float = Field(0, ge=0)
    service_details: PrintDetails = Field(default_factory=DocumentPrintDetails)

    @property
    def quantity(self) -> int:
        return 1


CartLineItem = Annotated[
    Union[ProductLineItem, PorterLineItem, PrintoutLineItem],
    Field(discriminator="service_type"),
]

_LINE_ITEM_ADAPTER: TypeAdapter[CartLineItem] = TypeAdapter(CartLineItem)


def parse_line_item(data: dict[str, Any]) -> CartLineItem:
    return _LINE_ITEM_ADAPTER.validate_python(data)
