# tiowire

`tiowire` is a library that encodes and decodes packets of the TIO sensor
wire protocol. It also moves those packets over TCP, UDP or a serial line.

## Installation

```
pip install tiowire
```

The test suite uses pytest, which comes with the `test` extra:

```
pip install "tiowire[test]"
```

## Packets

`tiowire.packet.Packet.deserialize(raw)` decodes the packet at the start of
`raw`. It returns the packet and the number of bytes it used.
`Packet.serialize()` encodes a packet back to bytes.

Decoding failures are raised as subclasses of
`tiowire.errors.ProtocolError`. `NeedMore` means the bytes end before the
packet does. Values that cannot be encoded raise
`tiowire.errors.SerializeError`.

```python
from tiowire.builder import PacketBuilder
from tiowire.packet import Packet
from tiowire.route import DeviceRoute

request = PacketBuilder.make_rpc_request("dev.name", b"", 7, DeviceRoute.parse("/0"))
raw = request.serialize()

packet, used = Packet.deserialize(raw)
assert used == len(raw)
print(packet.routing)          # /0
print(packet.payload.method)   # dev.name
```

A packet's `payload` is one of the payload classes:

- `tiowire.packet`: `LogMessagePayload`, `HeartbeatSession`,
  `HeartbeatAny`, `SettingsRpcHash`, `SettingsUnknown`,
  `StreamDataPayload`, `ProxyStatusPayload`, `RpcUpdatePayload` and
  `GenericPayload`. `GenericPayload` covers packet types that are carried
  along without being decoded, including the legacy timebase, source and
  stream descriptions.
- `tiowire.rpc`: `RpcRequestPayload`, `RpcReplyPayload` and
  `RpcErrorPayload`, plus `RpcErrorCode`. An RPC method is either an `int`
  id or a `str` name.
- `tiowire.meta`: `MetadataPayload`, whose `content` is a
  `DeviceMetadata`, `StreamMetadata`, `SegmentMetadata`, `ColumnMetadata`
  or `UnknownMetadata`. Unknown extensions are kept so that the payload
  re-encodes unchanged. Each content class has `make_update()` and
  `make_update_with_route(route)`, which build an update packet.
- `tiowire.legacy`: `LegacyStreamDataPayload`.

Wire codes with no named enum member are still accepted.
`tiowire.header.lookup_enum` turns them into `UNKNOWN_<n>` members that keep
the raw value.

`tiowire.route.DeviceRoute` is a path through the device tree, such as
`/0/2`. `DeviceRoute.root()` is the empty route `/`. `relative_route` gives
a route as seen from a subtree, and `absolute_route` turns it back into a
route from the root. `tiowire.identifiers` defines `StreamKey` and
`ColumnKey`, which name streams and columns of a device.

## RPC arguments and replies

`tiowire.builder.to_request(kind, value)` encodes an RPC argument.
`from_reply(kind, reply)` decodes a reply. A kind is one of:

- `None`, for no value;
- a number kind: `"u8"`, `"i8"`, `"u16"`, `"i16"`, `"u32"`, `"i32"`,
  `"u64"`, `"i64"`, `"f32"` or `"f64"`, encoded little-endian;
- `str`;
- a tuple of kinds, where only the last element may vary in size.

```python
from tiowire.builder import from_reply, to_request

to_request("u32", 115200)                  # b'\x00\xc2\x01\x00'
from_reply(("u16", str), b"\x01\x00abc")   # (1, 'abc')
```

`from_reply` raises `RpcTypeError` when the reply is too short or has bytes
left over. `from_reply_prefix` returns the decoded value together with the
remaining bytes.

## Ports

- `tiowire.tcp.TcpPort.connect((host, port))` sends packets unchanged
  over a TCP stream.
- `tiowire.udp.UdpPort.connect((host, port))` sends one packet per
  datagram.
- `tiowire.serial_port.SerialPort.open("/dev/ttyUSB0:400000:115200")`
  appends a CRC32 to each packet and frames it with SLIP. The address is the
  port name, then an optional target rate, then an optional default rate.
  Both rates default to 115200, and the port opens at the default rate.
  `set_rate(rate)` changes the rate, and `rate_info()` returns both rates.

All ports are non-blocking and work as context managers:

- `recv()` returns a `Packet`. It raises `tiowire.iobuf.NotReady` when no
  complete packet has arrived yet.
- Bad data raises `ProtocolRecvError`, and its `error` attribute holds the
  `ProtocolError`. When the serial line carries a line of plain text, that
  error is `TextReceived`.
- A closed connection raises `PortDisconnected`.
- On TCP and serial ports, `send()` raises `MustDrain` when only part of a
  packet could be written. Call `drain()` until it returns without raising.
  Calling `send()` while data is still buffered raises `TxFull`.

## What it does not do

`tiowire` handles packets and single connections only. It does not share
one device among several clients or route replies between them. It does not
negotiate serial data rates with a device. It provides no command-line
tools.