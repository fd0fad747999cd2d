"""Create database schema and seed a sample catalog for development."""
from __future__ import annotations

import asyncio

from inmoportal import models  # noqa: F401
from inmoportal.db.session import SessionLocal, engine
from inmoportal.models.base import Base
from inmoportal.models.company import CompanyProfile
from inmoportal.models.lead import Lead, LeadSource, LeadStatus
from inmoportal.models.property import Property, PropertyImage
from inmoportal.models.team import TeamMember
from inmoportal.models.user import User

OWNER_ID = "user-demo-owner"

USERS = [
	{"id": OWNER_ID, "email": "admin@example.com", "is_admin": True},
]

COMPANY = {
	"id": "company-demo",
	"user_id": OWNER_ID,
	"company_name": "Portal Inmobiliario",
	"contact_email": "contacto@example.com",
	"contact_phone": "+56 9 1234 5678",
	"address": "Av. Providencia 1234, Santiago",
	"whatsapp_number": "+56 9 1234 5678",
	"mission": "Conectar a cada familia con su próximo hogar.",
	"vision": "Ser la corredora de referencia de la zona central.",
	"history": "Fundada en 2010 como una pequeña oficina de barrio.",
}

PROPERTIES = [
	{
		"id": "prop-casa-nunoa",
		"title": "Casa familiar en Ñuñoa",
		"description": "Casa de dos pisos con patio y quincho.",
		"price": 8_900,
		"currency": "UF",
		"address": "Los Jardines 455",
		"city": "Ñuñoa",
		"bedrooms": 4,
		"bathrooms": 3,
		"area": 180,
		"property_type": "casa",
		"operation_type": "sale",
		"is_featured": True,
		"images": [
			("img-nunoa-1", "https://picsum.photos/seed/nunoa1/800/600", True),
			("img-nunoa-2", "https://picsum.photos/seed/nunoa2/800/600", False),
		],
	},
	{
		"id": "prop-depto-providencia",
		"title": "Departamento amoblado en Providencia",
		"description": "Dos dormitorios a pasos del metro.",
		"price": 750_000,
		"currency": "CLP",
		"address": "Av. Providencia 2020",
		"city": "Providencia",
		"bedrooms": 2,
		"bathrooms": 2,
		"area": 68,
		"property_type": "departamento",
		"operation_type": "lease",
		"is_featured": True,
		"images": [
			("img-provi-1", "https://picsum.photos/seed/provi1/800/600", False),
		],
	},
	{
		"id": "prop-parcela-pirque",
		"title": "Parcela con vista en Pirque",
		"description": "Parcela de agrado con derechos de agua.",
		"price": 4_200,
		"currency": "UF",
		"address": "Camino El Principal km 3",
		"city": "Pirque",
		"area": 5_000,
		"property_type": "parcela",
		"operation_type": "sale",
		"is_featured": False,
		"images": [],
	},
]

TEAM = [
	{"id": "team-carla", "name": "Carla Muñoz", "position": "Corredora principal", "order_number": 0},
	{"id": "team-diego", "name": "Diego Soto", "position": "Ejecutivo de arriendos", "order_number": 1},
]

LEADS = [
	{
		"id": "lead-ana",
		"name": "Ana",
		"email": "ana@example.com",
		"phone": "+56911112222",
		"message": "Hola, quisiera visitar la casa.",
		"property_id": "prop-casa-nunoa",
		"status": LeadStatus.NEW,
		"source": LeadSource.WEBSITE,
	},
]


async def create_schema() -> None:
	"""Create the database schema if it does not already exist."""

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)


async def seed_catalog() -> None:
	"""Insert or update the demo owner, company, listings and images."""

	async with SessionLocal() as session:
		async with session.begin():
			for user_data in USERS:
				if await session.get(User, user_data["id"]) is None:
					session.add(User(**user_data))

			company = await session.get(CompanyProfile, COMPANY["id"])
			if company is None:
				session.add(CompanyProfile(**COMPANY))
			else:
				for field, value in COMPANY.items():
					setattr(company, field, value)

			for prop in PROPERTIES:
				values = {key: value for key, value in prop.items() if key != "images"}
				property_obj = await session.get(Property, prop["id"])
				if property_obj is None:
					session.add(Property(user_id=OWNER_ID, **values))
				else:
					for field, value in values.items():
						setattr(property_obj, field, value)

				for image_id, url, is_primary in prop["images"]:
					image = await session.get(PropertyImage, image_id)
					if image is None:
						session.add(
							PropertyImage(
								id=image_id,
								property_id=prop["id"],
								image_url=url,
								is_primary=is_primary,
								user_id=OWNER_ID,
							)
						)
					else:
						image.image_url = url
						image.is_primary = is_primary


async def seed_team_and_leads() -> None:
	"""Insert demo team members and leads."""

	async with SessionLocal() as session:
		async with session.begin():
			for member_data in TEAM:
				member = await session.get(TeamMember, member_data["id"])
				if member is None:
					session.add(TeamMember(user_id=OWNER_ID, **member_data))
				else:
					for field, value in member_data.items():
						setattr(member, field, value)

			for lead_data in LEADS:
				if await session.get(Lead, lead_data["id"]) is None:
					session.add(Lead(user_id=OWNER_ID, **lead_data))


async def main() -> None:
	await create_schema()
	await seed_catalog()
	await seed_team_and_leads()
	print("Database schema ensured and demo catalog seeded.")


if __name__ == "__main__":
	asyncio.run(main())
