"""
DynamoDB storage operations for the Bus Tracker service
"""

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError
from typing import List, Dict, Any, Optional, Callable
import logging
import asyncio
from decimal import Decimal

from .errors import Conflict, NotFound, StoreError
from .models import Bus, LocationRecord
from .push_ids import generate_push_id

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED


def _bus_from_item(item: Dict[str, Any]) -> Bus:
    return Bus(
        bus_id=item['busId'],
        name=item['name'],
        active=bool(item.get('active', True)),
        created_at=item['createdAt'],
        updated_at=item['updatedAt']
    )


def _location_from_item(item: Dict[str, Any]) -> LocationRecord:
    return LocationRecord(
        id=item['locationId'],
        bus_id=item['busId'],
        latitude=float(item['latitude']),
        longitude=float(item['longitude']),
        recorded_at=item['recordedAt']
    )


class DynamoStore:
    """Handles all DynamoDB operations"""

    def __init__(
        self,
        bus_table: str,
        location_table: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        recorded_at_index: str = "busId-recordedAt-index",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None
    ):
        # None credentials fall back to the default boto3 credential chain
        self.dynamodb = boto3.resource(
            'dynamodb',
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key
        )
        self.bus_table = self.dynamodb.Table(bus_table)
        self.location_table = self.dynamodb.Table(location_table)
        self.bus_table_name = bus_table
        self.location_table_name = location_table
        self.recorded_at_index = recorded_at_index

    async def _run(self, func: Callable[[], Any]) -> Any:
        # boto3 is blocking; keep it off the event loop
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func)

    async def health_check(self) -> bool:
        """Check if DynamoDB tables are accessible"""
        try:
            bus_status = await self._run(lambda: self.bus_table.table_status)
            location_status = await self._run(lambda: self.location_table.table_status)

            return bus_status == 'ACTIVE' and location_status == 'ACTIVE'
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB health check failed: {str(e)}")
            return False

    async def create_bus(self, bus: Bus) -> Bus:
        """Insert a bus unless one with the same id already exists"""
        item = {
            'busId': bus.bus_id,
            'name': bus.name,
            'active': bus.active,
            'createdAt': bus.created_at,
            'updatedAt': bus.updated_at
        }

        try:
            await self._run(
                lambda: self.bus_table.put_item(
                    Item=item,
                    ConditionExpression='attribute_not_exists(busId)'
                )
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise Conflict(f"Bus {bus.bus_id} already exists")
            logger.error(f"Error registering bus {bus.bus_id}: {str(e)}")
            raise StoreError("Failed to register bus") from e
        except BotoCoreError as e:
            logger.error(f"Error registering bus {bus.bus_id}: {str(e)}")
            raise StoreError("Failed to register bus") from e

        return bus

    async def get_bus(self, bus_id: str) -> Optional[Bus]:
        """Get a bus by id"""
        try:
            response = await self._run(
                lambda: self.bus_table.get_item(Key={'busId': bus_id})
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error fetching bus {bus_id}: {str(e)}")
            raise StoreError("Failed to fetch bus") from e

        item = response.get('Item')
        if not item:
            return None
        return _bus_from_item(item)

    async def list_buses(self) -> List[Bus]:
        """Get all registered buses"""
        items = await self._scan(self.bus_table)
        return [_bus_from_item(item) for item in items]

    async def deactivate_bus(self, bus_id: str, updated_at: str) -> Bus:
        """Mark an existing bus inactive"""
        try:
            response = await self._run(
                lambda: self.bus_table.update_item(
                    Key={'busId': bus_id},
                    UpdateExpression='SET active = :inactive, updatedAt = :ts',
                    ConditionExpression='attribute_exists(busId)',
                    ExpressionAttributeValues={
                        ':inactive': False,
                        ':ts': updated_at
                    },
                    ReturnValues='ALL_NEW'
                )
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise NotFound(f"Bus {bus_id} not found")
            logger.error(f"Error deactivating bus {bus_id}: {str(e)}")
            raise StoreError("Failed to deactivate bus") from e
        except BotoCoreError as e:
            logger.error(f"Error deactivating bus {bus_id}: {str(e)}")
            raise StoreError("Failed to deactivate bus") from e

        return _bus_from_item(response['Attributes'])

    async def append_location(
        self,
        bus_id: str,
        latitude: float,
        longitude: float,
        recorded_at: str
    ) -> LocationRecord:
        """Store a single location record under a new push id"""
        record = LocationRecord(
            id=generate_push_id(),
            bus_id=bus_id,
            latitude=latitude,
            longitude=longitude,
            recorded_at=recorded_at
        )
        item = {
            'busId': record.bus_id,
            'locationId': record.id,
            'latitude': Decimal(str(record.latitude)),
            'longitude': Decimal(str(record.longitude)),
            'recordedAt': record.recorded_at
        }

        try:
            await self._run(lambda: self.location_table.put_item(Item=item))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error storing location for bus {bus_id}: {str(e)}")
            raise StoreError("Failed to add location") from e

        return record

    async def get_latest_location(self, bus_id: str) -> Optional[LocationRecord]:
        """Get the most recent location for a bus, ordered by recordedAt"""
        try:
            response = await self._run(
                lambda: self.location_table.query(
                    IndexName=self.recorded_at_index,
                    KeyConditionExpression=Key('busId').eq(bus_id),
                    ScanIndexForward=False,  # Most recent first
                    Limit=1
                )
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error fetching latest location for bus {bus_id}: {str(e)}")
            raise StoreError("Failed to fetch location") from e

        items = response.get('Items', [])
        return _location_from_item(items[0]) if items else None

    async def list_locations(self, bus_id: Optional[str] = None) -> List[LocationRecord]:
        """Get the location history of one bus, or of every bus"""
        if bus_id is None:
            items = await self._scan(self.location_table)
            items.sort(key=lambda item: (item['busId'], item['locationId']))
            return [_location_from_item(item) for item in items]

        items = []
        kwargs = {'KeyConditionExpression': Key('busId').eq(bus_id)}
        try:
            while True:
                response = await self._run(lambda: self.location_table.query(**kwargs))
                items.extend(response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error fetching locations for bus {bus_id}: {str(e)}")
            raise StoreError("Failed to fetch locations") from e

        return [_location_from_item(item) for item in items]

    async def _scan(self, table) -> List[Dict[str, Any]]:
        items = []
        kwargs: Dict[str, Any] = {}
        try:
            while True:
                response = await self._run(lambda: table.scan(**kwargs))
                items.extend(response.get('Items', []))
                # Handle pagination
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error scanning {table.name}: {str(e)}")
            raise StoreError("Failed to read from database") from e
        return items

    async def ensure_tables(self) -> List[str]:
        """Create the bus and location tables if they do not exist; returns the created names"""
        client = self.dynamodb.meta.client
        existing = await self._run(lambda: client.list_tables().get('TableNames', []))
        created = []

        if self.bus_table_name not in existing:
            await self._run(lambda: client.create_table(
                TableName=self.bus_table_name,
                KeySchema=[{'AttributeName': 'busId', 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': 'busId', 'AttributeType': 'S'}],
                BillingMode='PAY_PER_REQUEST'
            ))
            created.append(self.bus_table_name)

        if self.location_table_name not in existing:
            await self._run(lambda: client.create_table(
                TableName=self.location_table_name,
                KeySchema=[
                    {'AttributeName': 'busId', 'KeyType': 'HASH'},
                    {'AttributeName': 'locationId', 'KeyType': 'RANGE'}
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'busId', 'AttributeType': 'S'},
                    {'AttributeName': 'locationId', 'AttributeType': 'S'},
                    {'AttributeName': 'recordedAt', 'AttributeType': 'S'}
                ],
                GlobalSecondaryIndexes=[{
                    'IndexName': self.recorded_at_index,
                    'KeySchema': [
                        {'AttributeName': 'busId', 'KeyType': 'HASH'},
                        {'AttributeName': 'recordedAt', 'KeyType': 'RANGE'}
                    ],
                    'Projection': {'ProjectionType': 'ALL'}
                }],
                BillingMode='PAY_PER_REQUEST'
            ))
            created.append(self.location_table_name)

        for name in created:
            waiter = client.get_waiter('table_exists')
            await self._run(lambda: waiter.wait(TableName=name))
            logger.info(f"Created table {name}")

        return created
