"""API workflows against public vehicle-data, geocoding and mock CRUD services."""

from __future__ import annotations

from sitecheck.models.workflow import ResponseCheck, Workflow, WorkflowStep

NHTSA_API = "https://vpic.nhtsa.dot.gov/api/vehicles"
NOMINATIM_API = "https://nominatim.openstreetmap.org"
OVERPASS_API = "https://overpass-api.de/api/interpreter"
MOCK_API = "https://jsonplaceholder.typicode.com"
GOREST_API = "https://gorest.co.in/public/v2"

# Nominatim's usage policy requires an identifying agent
GEOCODER_HEADERS = {"User-Agent": "sitecheck/1.0"}

SAMPLE_VIN = "WDDGF4HB1CA660797"

DEALER_QUERY = """
[out:json][timeout:25];
area["name"="Stuttgart"]->.searchArea;
node["shop"="car"]["brand"~"Mercedes",i](area.searchArea);
out body;
"""


def vehicle_data_workflows() -> list[Workflow]:
    return [
        Workflow(
            name="API-01: Get Mercedes-Benz vehicle models",
            base_url=NHTSA_API,
            steps=[
                WorkflowStep(
                    name="models for make",
                    endpoint="/GetModelsForMake/mercedes?format=json",
                    expect="200",
                    checks=[
                        ResponseCheck(path="Results", op="min_length", value=1),
                        ResponseCheck(
                            path="Results.*.Model_Name", op="any_contains",
                            value=["C-Class", "E-Class", "S-Class", "GLE"],
                            description="known model lines listed",
                        ),
                    ],
                    bind={"first_model": "Results.0.Model_Name"},
                ),
            ],
        ),
        Workflow(
            name="API-02: Get vehicle details by VIN decoding",
            base_url=NHTSA_API,
            steps=[
                WorkflowStep(
                    name="decode VIN",
                    endpoint=f"/DecodeVinValues/{SAMPLE_VIN}?format=json",
                    expect="200",
                    checks=[ResponseCheck(path="Results.0.Make", op="contains", value="MERCEDES")],
                    bind={
                        "make": "Results.0.Make",
                        "model": "Results.0.Model",
                        "year": "Results.0.ModelYear",
                    },
                ),
            ],
        ),
        Workflow(
            name="API-03: Get vehicle manufacturers list",
            base_url=NHTSA_API,
            steps=[
                WorkflowStep(
                    name="all manufacturers",
                    endpoint="/GetAllManufacturers?format=json&page=1",
                    expect="200",
                    checks=[ResponseCheck(path="Results", op="min_length", value=1)],
                    bind={"manufacturer_count": "Count"},
                ),
            ],
        ),
    ]


def location_workflows() -> list[Workflow]:
    return [
        Workflow(
            name="API-04: Geocode Stuttgart location",
            base_url=NOMINATIM_API,
            steps=[
                WorkflowStep(
                    name="search Stuttgart",
                    endpoint="/search?q=Stuttgart,Germany&format=json&limit=1",
                    headers=GEOCODER_HEADERS,
                    expect="200",
                    checks=[
                        ResponseCheck(path="$", op="min_length", value=1),
                        ResponseCheck(path="0.display_name", op="contains", value="Stuttgart"),
                    ],
                    bind={"lat": "0.lat", "lon": "0.lon"},
                ),
            ],
        ),
        Workflow(
            name="API-05: Search for Mercedes dealerships in area",
            steps=[
                WorkflowStep(
                    name="overpass dealer query",
                    method="POST",
                    endpoint=OVERPASS_API,
                    headers={"Content-Type": "text/plain"},
                    body=DEALER_QUERY,
                    expect="200",
                    checks=[ResponseCheck(path="elements", op="exists")],
                ),
            ],
        ),
        Workflow(
            name="API-06: Validate location coordinates format",
            base_url=NOMINATIM_API,
            steps=[
                WorkflowStep(
                    name="search museum",
                    endpoint="/search?q=Mercedes-Benz+Museum+Stuttgart&format=json&limit=1",
                    headers=GEOCODER_HEADERS,
                    expect="200",
                    checks=[
                        # Stuttgart sits at roughly 48.7N 9.1E
                        ResponseCheck(path="0.lat", op="greater_than", value=48),
                        ResponseCheck(path="0.lon", op="greater_than", value=9),
                    ],
                    bind={"lat": "0.lat", "lon": "0.lon"},
                ),
            ],
        ),
    ]


def contact_workflows() -> list[Workflow]:
    return [
        Workflow(
            name="API-07: Submit contact form",
            base_url=MOCK_API,
            steps=[
                WorkflowStep(
                    name="submit contact request",
                    method="POST",
                    endpoint="/posts",
                    body={
                        "name": "Test Customer",
                        "email": "customer@test.com",
                        "subject": "Test Drive Request",
                        "message": "I would like to schedule a test drive for the new E-Class",
                        "preferredDealer": "Stuttgart-Mitte",
                        "vehicleInterest": "E-Class 2024",
                    },
                    expect="201",
                    checks=[ResponseCheck(path="id", op="exists")],
                    creates="contact_request",
                ),
            ],
            cleanup=[
                WorkflowStep(
                    name="withdraw contact request",
                    method="DELETE",
                    endpoint="/posts/{{contact_request_id}}",
                    releases="contact_request",
                ),
            ],
        ),
        Workflow(
            name="API-08: Update contact request",
            base_url=MOCK_API,
            steps=[
                WorkflowStep(
                    name="confirm contact request",
                    method="PUT",
                    endpoint="/posts/1",
                    body={
                        "id": 1,
                        "name": "Test Customer Updated",
                        "email": "customer.updated@test.com",
                        "subject": "Updated: Test Drive Request",
                        "status": "confirmed",
                    },
                    expect="200",
                    checks=[ResponseCheck(path="status", op="equals", value="confirmed")],
                ),
            ],
        ),
    ]


def account_workflows() -> list[Workflow]:
    return [
        Workflow(
            name="API-09: User registration flow",
            base_url=GOREST_API,
            steps=[
                WorkflowStep(
                    name="register customer",
                    method="POST",
                    endpoint="/users",
                    credential="gorest",
                    body={
                        "name": "Mercedes Test Customer",
                        "email": "mercedes.customer.{{$timestamp}}@test.com",
                        "gender": "female",
                        "status": "active",
                    },
                    expect="201",
                    checks=[
                        ResponseCheck(path="id", op="exists"),
                        ResponseCheck(path="name", op="equals", value="Mercedes Test Customer"),
                    ],
                    creates="user",
                ),
                WorkflowStep(
                    name="read back customer",
                    endpoint="/users/{{user_id}}",
                    credential="gorest",
                    expect="200",
                    checks=[ResponseCheck(path="status", op="equals", value="active")],
                ),
            ],
            cleanup=[
                WorkflowStep(
                    name="delete customer",
                    method="DELETE",
                    endpoint="/users/{{user_id}}",
                    credential="gorest",
                    releases="user",
                    verify_gone=True,
                ),
            ],
        ),
        Workflow(
            name="API-10: Unauthorized access returns 401",
            base_url=GOREST_API,
            steps=[
                WorkflowStep(
                    name="register without token",
                    method="POST",
                    endpoint="/users",
                    body={
                        "name": "Unauthorized User",
                        "email": "unauth@test.com",
                        "gender": "male",
                        "status": "active",
                    },
                    expect="401",
                ),
            ],
        ),
    ]


def api_workflows() -> list[Workflow]:
    return vehicle_data_workflows() + location_workflows() + contact_workflows() + account_workflows()
